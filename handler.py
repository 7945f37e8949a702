"""
AWS Lambda handler — Mangum wrapper for FastAPI.
"""

from mangum import Mangum

from fieldops.main import app

handler = Mangum(app, lifespan="off")
