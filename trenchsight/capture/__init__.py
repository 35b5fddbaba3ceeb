"""
Capture domain: sensor trackers, readiness gates, photo naming, media
capture and the session controller that ties them together.
"""
