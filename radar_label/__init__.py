# radar_label/__init__.py
'''
radar_label/
    __init__.py
    __main__.py

    app.py                 # QApplication + boot
    main_window.py         # QMainWindow layout + wiring + global keyboard

    domain.py              # dataclasses: PointAnnotation, BoxAnnotation, Frame, Viewport, Project
    geometry.py            # CoordinateTransformer (image <-> screen, rotation about image center)
    store.py               # pure annotation ops + AnnotationStore (owns the Project)
    hittest.py             # annotation / handle hit testing in screen space
    viewport.py            # zoom, pan, per-frame rotation
    interaction.py         # tools, pointer state machine, key table
    persistence.py         # project JSON, local backup, save target, debounced saving
    media_import.py        # image validation + folder loading

    widgets/
      annotation_canvas.py # painting + pointer/wheel forwarding

    dialogs/
      frame_order.py       # frame list, jump-to-frame, natural sort
'''

from __future__ import annotations

__all__ = ["__version__", "run_app"]

__version__ = "0.1.0"

from .app import run_app
