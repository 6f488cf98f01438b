"""
REST API resolver for the orders web API.

A configured API Gateway REST resolver with request validation and OpenAPI
documentation.
"""

from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.openapi.models import Tag

# API path constants
ORDERS_PATH = '/api/orders'
HEALTH_PATH = '/health'

# OpenAPI tags for documentation
ORDERS_TAG = Tag(name='Orders', description='Create, validate and query orders')
HEALTH_TAG = Tag(name='Health', description='Health check operations')

app = APIGatewayRestResolver(enable_validation=True)

app.enable_swagger(
    path='/swagger',
    title='Orders API',
    version='1.0.0',
    description='Order creation and validation backed by Dataverse, sharing its rules with the Dataverse plugin',
    tags=[ORDERS_TAG, HEALTH_TAG],
)
