"""
Ride Match Dependencies

FastAPI dependencies resolving the collaborators built in the app lifespan.
"""

from fastapi import HTTPException, Request, status

from ridematch.services.match_service import MatchOrchestrator


def get_orchestrator(request: Request) -> MatchOrchestrator:
    """Orchestrator wired up at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Matching engine is not ready"
        )
    return orchestrator
