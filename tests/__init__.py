import os

# app 모듈을 import 하기 전에 테스트용 설정을 고정
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BROADCAST_BACKEND"] = "memory"
os.environ.pop("SQLALCHEMY_DATABASE_URL", None)
os.environ.pop("SENTRY_DSN", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")
