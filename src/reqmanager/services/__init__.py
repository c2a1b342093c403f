"""Reconcile services: key material, classification, synthesis and dispatch."""

from reqmanager.services.actions import ActionSink
from reqmanager.services.key_material import KeyMaterial, KeyMaterialValidator
from reqmanager.services.recorder import EventRecorder
from reqmanager.services.request_manager import RequestManager
from reqmanager.services.request_matcher import MatchTarget, classify_request
from reqmanager.services.request_synthesizer import RequestSynthesizer
from reqmanager.services.workers import ReconcileWorker

__all__ = [
    "ActionSink",
    "EventRecorder",
    "KeyMaterial",
    "KeyMaterialValidator",
    "MatchTarget",
    "ReconcileWorker",
    "RequestManager",
    "RequestSynthesizer",
    "classify_request",
]
