"""Background workers for the transfer service."""

from .transfer_worker import EmptyResultError, TransferWorker

__all__ = ["EmptyResultError", "TransferWorker"]
