from svcpanel.cli import app

app()
