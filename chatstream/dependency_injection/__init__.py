from chatstream.dependency_injection.container import build_container, build_context, build_session

__all__ = ["build_container", "build_context", "build_session"]
