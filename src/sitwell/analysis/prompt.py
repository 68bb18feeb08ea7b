"""Instruction text sent with every frame."""

POSTURE_PROMPT = (
    "Analyze the posture of the person in this image. Focus on whether they are sitting upright "
    "suitable for working at a computer, or if they are slouching, hunching, or leaning too far "
    "forward/backward. Respond ONLY with JSON containing 'posture': 'good' or 'posture': 'bad'. "
    "If 'bad', optionally include a brief 'reason'. "
    'Example good: {"posture": "good"}. '
    'Example bad: {"posture": "bad", "reason": "Slouching forward"}.'
)
