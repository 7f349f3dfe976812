from mangum import Mangum
import logging
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rebase_token.api import create_app
from rebase_token.config import LedgerSettings

settings = LedgerSettings.from_env()
logging.basicConfig(level=settings.log_level)

app = create_app(settings)
app.root_path = "/api"

handler = Mangum(app)
