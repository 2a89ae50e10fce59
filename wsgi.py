from webdesk.main import app as application
