"""Paying client: the x402 split payment flow."""

from .flow import FlowResult, FlowState, FlowStatus, PaymentFlow

__all__ = ["FlowResult", "FlowState", "FlowStatus", "PaymentFlow"]
