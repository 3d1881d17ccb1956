import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here-make-it-long'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'houseshare.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment gateway (Paystack)
    PAYSTACK_SECRET_KEY = os.environ.get('PAYSTACK_SECRET_KEY', '')
    PAYSTACK_BASE_URL = os.environ.get('PAYSTACK_BASE_URL', 'https://api.paystack.co')
    GATEWAY_TIMEOUT = float(os.environ.get('GATEWAY_TIMEOUT', 10))

    # Join codes are regenerated on collision at most this many times
    JOIN_CODE_ATTEMPTS = int(os.environ.get('JOIN_CODE_ATTEMPTS', 10))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PAYSTACK_SECRET_KEY = 'sk_test'
    LOG_LEVEL = 'WARNING'
