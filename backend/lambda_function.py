import os

# API Gateway invocations are short lived, background payment polls do not survive them
os.environ.setdefault("PAYMENT_BACKGROUND_POLLING", "false")

from mangum import Mangum
from main import app

handler = Mangum(app, lifespan="off")


def lambda_handler(event, context):
    return handler(event, context)
