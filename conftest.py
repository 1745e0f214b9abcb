"""
Root pytest configuration.
Sets the testing environment before the application modules are imported.
"""
import os

os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("CACHE_BACKEND", "memory")
