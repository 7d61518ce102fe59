import logging
from mangum import Mangum
from main import app

logging.getLogger().setLevel(logging.INFO)

handler = Mangum(app, lifespan="off")


def lambda_handler(event, context):
    return handler(event, context)
