from .models_controller import router as models_router
from .recognition_controller import router as recognition_router


__all__ = ["models_router", "recognition_router"]
