"""
Research orchestration core and its FastAPI layer

Provides the job store, pipeline executor, scheduler and the facade used
for asynchronous job submission, status tracking and result retrieval.
"""

__version__ = "1.0.0"
