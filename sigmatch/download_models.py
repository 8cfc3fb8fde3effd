import logging
import os
import sys
import urllib.request

from .config import settings
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)


def download_file(url, filename):
    logger.info(f"Downloading {filename}...")
    tmp_path = f"{filename}.part"
    try:
        urllib.request.urlretrieve(url, tmp_path)
        os.replace(tmp_path, filename)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
    logger.info(f"Downloaded {filename}")


def main(model_path=None, model_url=None):
    model_path = model_path or settings.MODEL_PATH
    model_url = model_url or settings.MODEL_URL

    if os.path.exists(model_path):
        logger.info(f"Model already present at {model_path}")
        return True

    if not model_url:
        logger.error("MODEL_URL is not set")
        logger.error(f"Please place the signature feature extractor at {model_path}")
        return False

    # Create models directory if it doesn't exist
    os.makedirs(os.path.dirname(model_path) or '.', exist_ok=True)

    try:
        download_file(model_url, model_path)
    except OSError as e:
        logger.error(f"Error downloading {model_path}: {str(e)}")
        logger.error(f"Please download the model manually and place it at {model_path}")
        return False
    return True


def cli():
    setup_logging()
    sys.exit(0 if main() else 1)


if __name__ == "__main__":
    cli()
