"""
Shared fixtures for odata-service-writer tests.
"""
from odata_service_writer.tests.shared_fixtures import *  # noqa: F401,F403
