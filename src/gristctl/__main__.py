from gristctl.cli import app

app()
