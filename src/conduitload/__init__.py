"""conduitload: scripted load tests for the Conduit (RealWorld) API."""

from __future__ import annotations

from conduitload.api.actions import ConduitApi
from conduitload.api.data import AuthenticatedUser, UserCredential
from conduitload.dsl.checks import ResponseClass, classify_response, is_acceptable, json_field
from conduitload.dsl.context import VirtualUser
from conduitload.dsl.decorators import iteration, scenario, setup, teardown
from conduitload.dsl.dispatcher import WeightedDispatcher
from conduitload.dsl.http_client import ApiResult, BatchRequest, HttpClient, RequestMetric
from conduitload.dsl.scenario import SetupData
from conduitload.patterns.base import LoadPattern
from conduitload.patterns.constant import ConstantPattern
from conduitload.patterns.stages import Stage, StagesPattern

__version__ = "0.1.0"

__all__ = [
    "ApiResult",
    "AuthenticatedUser",
    "BatchRequest",
    "ConduitApi",
    "ConstantPattern",
    "HttpClient",
    "LoadPattern",
    "RequestMetric",
    "ResponseClass",
    "SetupData",
    "Stage",
    "StagesPattern",
    "UserCredential",
    "VirtualUser",
    "WeightedDispatcher",
    "classify_response",
    "is_acceptable",
    "iteration",
    "json_field",
    "scenario",
    "setup",
    "teardown",
]
