"""
AWS Lambda Handlers Module.

Entry points for the two hosts of the shared order validator:

1. orders_handler: REST API behind API Gateway (create, validate, query orders)
2. plugin_handler: Dataverse synchronous webhook run on order Create
"""
