# Overview: WSGI entrypoint; FLASK_APP target for the CLI and the app server.

from exportops import create_app

app = create_app()
