from .session_export import CSV_HEADER, SessionExporter, render_csv, render_json

__all__ = ["CSV_HEADER", "SessionExporter", "render_csv", "render_json"]
