"""Exceptions raised by the managers and mapped to HTTP statuses by the API"""


class PortfolioError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PortfolioError):
    status_code = 400


class AuthenticationError(PortfolioError):
    status_code = 401


class InvalidTokenError(PortfolioError):
    status_code = 403


class NotFoundError(PortfolioError):
    status_code = 404


class PreconditionFailed(PortfolioError):
    status_code = 412


class StoreError(PortfolioError):
    status_code = 500
