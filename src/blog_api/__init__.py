"""
Blog API package.

Modules:
- config: environment-driven Settings
- db: PostgreSQL connection pooling + query helpers
- repository: parameterized SQL for users, pages and contacts
- auth_utils: password hashing, JWT issue/verify, and auth dependencies
- captcha: reCAPTCHA verification gate
- validation: field rules and request-error formatting
- schemas: Pydantic models for the REST API
- main: FastAPI application factory and routes
"""
