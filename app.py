import logging

from scriptserver.config import Settings
from scriptserver.web import create_app

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

app = create_app(settings)

if __name__ == '__main__':
    app.run(host=settings.host, port=settings.port)
