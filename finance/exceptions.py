from rest_framework import status
from rest_framework.exceptions import APIException


class LedgerError(APIException):
    """
    Base class for ledger failures.

    `default_code` doubles as the error kind surfaced to API clients.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'ledger_error'
    default_detail = 'Ledger operation failed.'

    @property
    def kind(self):
        return self.default_code

    def to_response_data(self):
        return {
            "status": "error",
            "error": self.kind,
            "message": str(self.detail),
        }


class InsufficientStock(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'InsufficientStock'
    default_detail = 'Insufficient stock for one or more items.'


class InvalidProduct(LedgerError):
    default_code = 'InvalidProduct'
    default_detail = 'Invalid product(s).'


class InvalidInstallment(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'InvalidInstallment'
    default_detail = 'Installment not found.'


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'NotFound'
    default_detail = 'Not found.'


class InvalidAmount(LedgerError):
    default_code = 'InvalidAmount'
    default_detail = 'Invalid amount.'


class ContractHasInstallments(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'ContractHasInstallments'
    default_detail = 'Cannot delete contract with installments.'


class ConcurrentUpdate(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'ConcurrentUpdate'
    default_detail = 'The installment was modified concurrently, please retry.'


class UnknownJob(LedgerError):
    default_code = 'UnknownJob'
    default_detail = 'Unknown job.'


class JobAlreadyRunning(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'JobAlreadyRunning'
    default_detail = 'This job is already running.'


class InvalidQuery(LedgerError):
    default_code = 'InvalidQuery'
    default_detail = 'Invalid query parameter.'


class InvalidStatus(LedgerError):
    default_code = 'InvalidStatus'
    default_detail = 'Invalid status.'
