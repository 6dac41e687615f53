from allotment.cli import app

app()
