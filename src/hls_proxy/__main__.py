import hls_proxy.web_server
from hls_proxy.config import Config
import os, sys, logging

APP = "hls_proxy"

logger = logging.getLogger(__name__)


def configure_logging(config):
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(config.log_level)
    handlers = [stdout_handler]

    if config.log_file:
        os.makedirs(os.path.dirname(os.path.abspath(config.log_file)), exist_ok=True)
        handlers.append(logging.FileHandler(filename=config.log_file, encoding="utf-8"))

    logging.basicConfig(handlers=handlers,
                        format='%(levelname)s:%(message)s',
                        level=logging.DEBUG if config.log_file else config.log_level)


def main():
    config = Config.from_env()
    configure_logging(config)
    logger.info(f"{APP} started")

    ws = hls_proxy.web_server.WebServer(config)
    ws.start()

if __name__ == '__main__':
    main()
