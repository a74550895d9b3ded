from .frames import Frame, RawFrame, build_ack_frame, build_frame, encode_frame, parse_frame

__all__ = [
    "Frame",
    "RawFrame",
    "build_ack_frame",
    "build_frame",
    "encode_frame",
    "parse_frame",
]
