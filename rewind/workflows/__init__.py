"""Workflow exports"""
from rewind.workflows.rewind_workflow import RewindWorkflow
from rewind.workflows.list_page_workflow import ListPageWorkflow
from rewind.workflows.fetch_match_workflow import FetchMatchWorkflow

__all__ = [
    "RewindWorkflow",
    "ListPageWorkflow",
    "FetchMatchWorkflow",
]
