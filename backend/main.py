from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dayplanner.api.router import router as api_router
from dayplanner.api.diagnostics import router as diagnostics_router
from dayplanner.core.config import settings, logger, log_settings_warnings
from dayplanner.core.container import Services, build_services

def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Builds the FastAPI application.
    Collaborators are created at startup unless they are passed in (tests pass fakes).
    """
    current_settings = services.settings if services else settings

    app = FastAPI(
        title=current_settings.PROJECT_NAME,
        version="1.0",
        description="Sells a personalized day itinerary: Stripe checkout, Gemini generation, PDF rendering and email delivery.",
    )

    # Set up CORS so the checkout form can call the API.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=current_settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=current_settings.API_V1_STR)
    if current_settings.ENABLE_DIAGNOSTICS:
        app.include_router(diagnostics_router, prefix=current_settings.API_V1_STR)

    if services is not None:
        app.state.services = services

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting up {current_settings.PROJECT_NAME}...")
        log_settings_warnings(current_settings)
        if not hasattr(app.state, "services"):
            app.state.services = build_services(current_settings)

    @app.get("/", tags=["Root"])
    def read_root():
        """A simple health check endpoint to confirm the API is running."""
        return {"status": "ok", "message": f"Welcome to the {current_settings.PROJECT_NAME} API!"}

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
