from .logging import JsonlLogSink, LogMessage, LogSink, StdoutLogSink, message_to_dict, render_value

__all__ = ["LogMessage", "LogSink", "StdoutLogSink", "JsonlLogSink", "message_to_dict", "render_value"]
