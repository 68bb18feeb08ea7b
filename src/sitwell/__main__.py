from sitwell.cli import app

app()
