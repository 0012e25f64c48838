"""lwvideo -- play videos on a pixel display built inside Logic World.

Samples a video into low-resolution frames with ffmpeg, thresholds each
frame to 1 bit per pixel, and writes a delay-line display circuit into a
Logic World save file that replays the frames when triggered.
"""

__version__ = "0.1.0"
