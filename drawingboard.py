#!/usr/bin/env python3
"""Drawing Board — a freehand raster drawing surface built with Python + PyQt5."""

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum, auto

from PyQt5.QtCore import QPoint, QSettings, QSize, Qt
from PyQt5.QtGui import QColor, QImage, QKeySequence, QPainter
from PyQt5.QtWidgets import (
    QAction, QActionGroup, QApplication, QColorDialog, QFileDialog,
    QMainWindow, QMessageBox, QScrollArea, QSizePolicy, QSpinBox, QToolBar,
    QWidget,
)

log = logging.getLogger("drawingboard")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
APP_NAME = "Drawing Board"
DEFAULT_WIDTH = 700
DEFAULT_HEIGHT = 350
DEFAULT_BACKGROUND = QColor(Qt.white)
DEFAULT_COLOR = QColor(Qt.black)
DEFAULT_BRUSH_RADIUS = 3
DEFAULT_TOOL = "Brush"
DEFAULT_DIR = os.path.expanduser("~/Pictures")

SAVE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp')


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class DrawingBoardError(Exception):
    """Base class for drawing board errors."""


class ToolNotFoundError(DrawingBoardError, KeyError):
    def __init__(self, name):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"no tool registered under {self.name!r}"


class NoToolSelectedError(DrawingBoardError, RuntimeError):
    def __str__(self):
        return "no drawing tool is selected"


# ---------------------------------------------------------------------------
# Pointer input
# ---------------------------------------------------------------------------
class PointerKind(Enum):
    PRESS = auto()
    DRAG = auto()
    MOVE = auto()
    RELEASE = auto()


@dataclass(frozen=True)
class PointerEvent:
    """A pointer event in buffer-local pixel coordinates."""
    kind: PointerKind
    x: int
    y: int


# ---------------------------------------------------------------------------
# Raster buffer
# ---------------------------------------------------------------------------
class RasterBuffer:
    """Mutable RGB pixel grid backed by a QImage.

    Pixels are stored as opaque RGB (``Format_RGB32``): alpha written through
    ``set`` is discarded and ``get`` always returns an RGB-spec colour with
    alpha 255.

    Reads outside the grid return None and writes outside it are dropped,
    so tools may hand over coordinates that fall past the canvas edge.

    When ``image`` is given it is composited over ``background`` at its own
    size, so transparent areas come out as background rather than black.
    """

    def __init__(self, width=DEFAULT_WIDTH, height=DEFAULT_HEIGHT,
                 background=DEFAULT_BACKGROUND, image=None):
        if image is not None:
            if image.isNull():
                raise ValueError("cannot build a raster from a null image")
            width, height = image.width(), image.height()
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid raster size {width}x{height}")
        self._image = QImage(width, height, QImage.Format_RGB32)
        self._image.fill(QColor(background))
        if image is not None:
            p = QPainter(self._image)
            p.drawImage(QPoint(0, 0), image)
            p.end()

    @classmethod
    def from_image(cls, image, background=DEFAULT_BACKGROUND):
        """Adopt an externally decoded image of any size."""
        return cls(background=background, image=image)

    def width(self):
        return self._image.width()

    def height(self):
        return self._image.height()

    def contains(self, x, y):
        return 0 <= x < self._image.width() and 0 <= y < self._image.height()

    def get(self, x, y):
        if not self.contains(x, y):
            return None
        return self._image.pixelColor(x, y)

    def set(self, x, y, color):
        if self.contains(x, y):
            self._image.setPixelColor(x, y, color)

    def fill(self, color):
        self._image.fill(QColor(color))

    def image(self):
        return self._image

    def copy(self):
        return RasterBuffer.from_image(self._image.copy())


# ---------------------------------------------------------------------------
# Tool classes (Strategy pattern)
# ---------------------------------------------------------------------------
class DrawTool:
    """Base interface for all drawing tools.

    A tool keeps only its own style settings. The buffer it paints on is
    passed to every call, so replacing the surface image never leaves a
    tool pointing at a stale raster.
    """

    name = "Base"

    def __init__(self, color=DEFAULT_COLOR):
        self.color = QColor(color)

    def perform_action(self, buffer, event):
        raise NotImplementedError


class BrushTool(DrawTool):
    """Paints a filled disc of ``radius`` pixels around the pointer."""

    name = "Brush"

    def __init__(self, color=DEFAULT_COLOR, radius=DEFAULT_BRUSH_RADIUS):
        super().__init__(color)
        if radius < 0:
            raise ValueError(f"brush radius must be >= 0, got {radius}")
        self.radius = radius

    def perform_action(self, buffer, event):
        r = self.radius
        r2 = r * r
        cx, cy = event.x, event.y
        # Clip the bounding square once; buffer.set drops anything left over.
        x0, x1 = max(0, cx - r), min(buffer.width() - 1, cx + r)
        y0, y1 = max(0, cy - r), min(buffer.height() - 1, cy + r)
        for y in range(y0, y1 + 1):
            dy = y - cy
            for x in range(x0, x1 + 1):
                dx = x - cx
                if dx * dx + dy * dy <= r2:
                    buffer.set(x, y, self.color)


class PencilTool(DrawTool):
    name = "Pencil"

    def perform_action(self, buffer, event):
        buffer.set(event.x, event.y, self.color)


DEFAULT_TOOLS = (BrushTool, PencilTool)


# ---------------------------------------------------------------------------
# Tool registry
# ---------------------------------------------------------------------------
class ToolRegistry:
    """Name -> tool lookup. Registering an existing name replaces the old tool."""

    def __init__(self):
        self._tools = {}

    def register(self, name, tool):
        if name in self._tools:
            log.debug(f"[tools] replacing {name}")
        self._tools[name] = tool

    def get(self, name):
        return self._tools.get(name)

    def names(self):
        return list(self._tools)

    def clear(self):
        self._tools.clear()

    def __contains__(self, name):
        return name in self._tools

    def __len__(self):
        return len(self._tools)


# ---------------------------------------------------------------------------
# Drawing surface
# ---------------------------------------------------------------------------
class DrawingSurface:
    """Owns the raster, the tool registry and the current tool selection.

    Must be driven from a single thread (the Qt GUI thread); nothing here
    takes a lock.
    """

    _ACTIVE_KINDS = (PointerKind.PRESS, PointerKind.DRAG)

    def __init__(self, width=DEFAULT_WIDTH, height=DEFAULT_HEIGHT,
                 background=DEFAULT_BACKGROUND):
        self._width = width
        self._height = height
        self._background = QColor(background)
        self._buffer = RasterBuffer(width, height, background)
        self._registry = ToolRegistry()
        self._selected = None
        self._color = QColor(DEFAULT_COLOR)
        self._brush_radius = DEFAULT_BRUSH_RADIUS
        self._redraw_listeners = []
        self.initialize_tools()

    # --- Tools ---
    def initialize_tools(self):
        """Rebuild the default tool set and select the default tool."""
        self._registry.clear()
        for tool_cls in DEFAULT_TOOLS:
            if tool_cls is BrushTool:
                tool = BrushTool(self._color, self._brush_radius)
            else:
                tool = tool_cls(self._color)
            self._registry.register(tool_cls.name, tool)
        self._selected = DEFAULT_TOOL
        log.debug(f"[tools] initialized {self._registry.names()}, selected {DEFAULT_TOOL}")

    def tool_names(self):
        return self._registry.names()

    def select_tool(self, name):
        if name not in self._registry:
            raise ToolNotFoundError(name)
        self._selected = name
        log.debug(f"[tools] selected {name}")

    @property
    def selected_tool_name(self):
        return self._selected

    def selected_tool(self):
        if self._selected is None:
            return None
        return self._registry.get(self._selected)

    def tool(self, name):
        return self._registry.get(name)

    @property
    def color(self):
        return QColor(self._color)

    def set_color(self, color):
        self._color = QColor(color)
        for name in self._registry.names():
            self._registry.get(name).color = QColor(color)

    @property
    def brush_radius(self):
        return self._brush_radius

    def set_brush_radius(self, radius):
        if radius < 0:
            raise ValueError(f"brush radius must be >= 0, got {radius}")
        self._brush_radius = radius
        brush = self._registry.get(BrushTool.name)
        if brush is not None:
            brush.radius = radius

    # --- Events ---
    def add_redraw_listener(self, callback):
        self._redraw_listeners.append(callback)

    def _request_redraw(self):
        for callback in self._redraw_listeners:
            callback()

    def handle_pointer_event(self, event):
        if event.kind not in self._ACTIVE_KINDS:
            return
        tool = self.selected_tool()
        if tool is None:
            raise NoToolSelectedError()
        tool.perform_action(self._buffer, event)
        self._request_redraw()

    # --- Image ---
    def get_image(self):
        return self._buffer

    def blank_image(self):
        """A fresh buffer with the size and background the surface was built with."""
        return RasterBuffer(self._width, self._height, self._background)

    def replace_image(self, new_buffer):
        log.debug(f"[image] replacing with {new_buffer.width()}x{new_buffer.height()}")
        self._buffer = new_buffer
        self.initialize_tools()
        self._request_redraw()


# ---------------------------------------------------------------------------
# Qt host widget
# ---------------------------------------------------------------------------
class CanvasWidget(QWidget):
    """Paints a DrawingSurface and feeds it mouse input."""

    def __init__(self, surface=None, parent=None):
        super().__init__(parent)
        self.surface = surface if surface is not None else DrawingSurface()
        self.surface.add_redraw_listener(self._on_redraw)
        self._modified = False
        self.setMouseTracking(True)
        self.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Fixed)
        self.setCursor(Qt.CrossCursor)
        self._fit_to_image()

    @property
    def modified(self):
        return self._modified

    def set_modified(self, val=True):
        self._modified = val

    def _fit_to_image(self):
        self.setFixedSize(self.sizeHint())
        self.updateGeometry()

    def _on_redraw(self):
        self.update()

    def set_buffer(self, buffer):
        self.surface.replace_image(buffer)
        self._fit_to_image()
        self.set_modified(False)

    def load_image(self, image):
        self.set_buffer(RasterBuffer.from_image(image))

    # --- Mouse events ---
    def _dispatch(self, kind, pos):
        self.surface.handle_pointer_event(PointerEvent(kind, pos.x(), pos.y()))

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return
        self._dispatch(PointerKind.PRESS, event.pos())
        self.set_modified()

    def mouseMoveEvent(self, event):
        if event.buttons() & Qt.LeftButton:
            self._dispatch(PointerKind.DRAG, event.pos())
            self.set_modified()
        else:
            self._dispatch(PointerKind.MOVE, event.pos())

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._dispatch(PointerKind.RELEASE, event.pos())

    # --- Painting ---
    def sizeHint(self):
        buf = self.surface.get_image()
        return QSize(buf.width(), buf.height())

    def paintEvent(self, event):
        p = QPainter(self)
        p.drawImage(QPoint(0, 0), self.surface.get_image().image())
        p.end()


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------
class DrawingBoardWindow(QMainWindow):
    def __init__(self, surface=None):
        super().__init__()
        self._file_path = None
        self.canvas = CanvasWidget(surface)

        scroll = QScrollArea()
        scroll.setWidget(self.canvas)
        scroll.setAlignment(Qt.AlignLeft | Qt.AlignTop)
        self.setCentralWidget(scroll)

        self._tool_actions = {}
        self._build_menus()
        self._build_toolbar()
        self._update_title()
        self._restore_geometry()

    # ---- UI construction ----
    def _build_menus(self):
        mb = self.menuBar()
        file_menu = mb.addMenu("&File")
        self._add_action(file_menu, "&New", self._file_new, QKeySequence("Ctrl+N"))
        self._add_action(file_menu, "&Open...", self._file_open, QKeySequence("Ctrl+O"))
        self._add_action(file_menu, "&Save", self._file_save, QKeySequence("Ctrl+S"))
        self._add_action(file_menu, "Save &As...", self._file_save_as, QKeySequence("Ctrl+Shift+S"))
        file_menu.addSeparator()
        self._add_action(file_menu, "E&xit", self.close)

        edit_menu = mb.addMenu("&Edit")
        self._add_action(edit_menu, "&Color...", self._choose_color)

    def _build_toolbar(self):
        tb = QToolBar("Tools")
        tb.setObjectName("tools")
        self.addToolBar(Qt.LeftToolBarArea, tb)
        self._tool_group = QActionGroup(self)
        self._tool_group.setExclusive(True)
        for name in sorted(self.canvas.surface.tool_names()):
            action = QAction(name, self)
            action.setCheckable(True)
            action.triggered.connect(lambda checked=False, n=name: self._on_tool_selected(n))
            self._tool_group.addAction(action)
            tb.addAction(action)
            self._tool_actions[name] = action
        self._sync_tool_actions()

        tb.addSeparator()
        self.radius_spin = QSpinBox()
        self.radius_spin.setRange(0, 100)
        self.radius_spin.setValue(self.canvas.surface.brush_radius)
        self.radius_spin.setToolTip("Brush radius")
        self.radius_spin.valueChanged.connect(self._on_radius_changed)
        tb.addWidget(self.radius_spin)

    def _sync_tool_actions(self):
        selected = self.canvas.surface.selected_tool_name
        for name, action in self._tool_actions.items():
            action.setChecked(name == selected)

    def _add_action(self, menu, text, slot, shortcut=None):
        action = menu.addAction(text)
        def _handler(checked=False, _s=slot, _t=text):
            log.info(f"[action] {_t}")
            try:
                _s()
            except Exception as e:
                log.error(f"[action ERROR] {_t}: {e}", exc_info=True)
        action.triggered.connect(_handler)
        if shortcut:
            action.setShortcut(shortcut)
        return action

    def _update_title(self):
        name = os.path.basename(self._file_path) if self._file_path else "Untitled"
        self.setWindowTitle(f"{name} - {APP_NAME}")

    # ---- Tool / colour actions ----
    def _on_tool_selected(self, name):
        log.info(f"[tool] {name}")
        try:
            self.canvas.surface.select_tool(name)
        except ToolNotFoundError as e:
            log.error(f"[tool ERROR] {e}")
        self._sync_tool_actions()

    def _on_radius_changed(self, value):
        log.info(f"[brush] radius {value}")
        self.canvas.surface.set_brush_radius(value)

    def _choose_color(self):
        c = QColorDialog.getColor(self.canvas.surface.color, self, "Drawing Color")
        if c.isValid():
            self.canvas.surface.set_color(c)

    # ---- File actions ----
    def _check_save(self):
        """Returns True if OK to proceed (user saved or discarded)."""
        if not self.canvas.modified:
            return True
        ret = QMessageBox.question(
            self, APP_NAME,
            "The image has been modified. Save changes?",
            QMessageBox.Save | QMessageBox.Discard | QMessageBox.Cancel,
        )
        if ret == QMessageBox.Save:
            return self._file_save()
        return ret == QMessageBox.Discard

    def _after_image_replaced(self):
        self._sync_tool_actions()
        self._update_title()

    def _file_new(self):
        if not self._check_save():
            return
        self._file_path = None
        self.canvas.set_buffer(self.canvas.surface.blank_image())
        self._after_image_replaced()

    def _start_dir(self):
        if self._file_path:
            return os.path.dirname(self._file_path)
        return QSettings("DrawingBoard", APP_NAME).value("last_dir", DEFAULT_DIR)

    def _remember_dir(self, path):
        QSettings("DrawingBoard", APP_NAME).setValue("last_dir", os.path.dirname(path))

    def _file_open(self):
        log.info("[open] File > Open triggered")
        if not self._check_save():
            return
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", self._start_dir(),
            "Images (*.png *.jpg *.jpeg *.bmp *.gif);;All Files (*)")
        log.info(f"[open] Dialog returned: {path!r}")
        if path:
            self.open_file(path)

    def open_file(self, path):
        """Load an image file into the canvas."""
        log.info(f"[open] Loading: {path}")
        img = QImage(path)
        if img.isNull():
            log.error(f"[open] Failed to load: {path}")
            QMessageBox.warning(self, APP_NAME, f"Could not open {path}")
            return False
        self.canvas.load_image(img)
        self._file_path = path
        self._remember_dir(path)
        self._after_image_replaced()
        log.info(f"[open] OK: {img.width()}x{img.height()}")
        return True

    def _file_save(self):
        if self._file_path:
            return self._save_to(self._file_path)
        return self._file_save_as()

    def _file_save_as(self):
        path, _ = QFileDialog.getSaveFileName(
            self, "Save Image", self._start_dir(),
            "PNG (*.png);;JPEG (*.jpg *.jpeg);;BMP (*.bmp);;All Files (*)")
        if path:
            return self._save_to(path)
        return False

    def _save_to(self, path):
        # Default to .png if no recognized extension
        _, ext = os.path.splitext(path)
        if ext.lower() not in SAVE_EXTENSIONS:
            path += '.png'
        log.info(f"[save] Saving to {path}")
        if self.canvas.surface.get_image().image().save(path):
            log.info("[save] OK")
            self._file_path = path
            self._remember_dir(path)
            self.canvas.set_modified(False)
            self._update_title()
            return True
        log.error(f"[save] FAILED: {path}")
        QMessageBox.warning(self, APP_NAME, f"Could not save to {path}")
        return False

    # ---- Window geometry persistence ----
    def _save_geometry(self):
        settings = QSettings("DrawingBoard", APP_NAME)
        settings.setValue("geometry", self.saveGeometry())

    def _restore_geometry(self):
        settings = QSettings("DrawingBoard", APP_NAME)
        geom = settings.value("geometry")
        if geom:
            self.restoreGeometry(geom)

    def closeEvent(self, event):
        if self._check_save():
            self._save_geometry()
            event.accept()
        else:
            event.ignore()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def _log_path():
    log_dir = os.environ.get("DRAWINGBOARD_LOG_DIR") or os.path.dirname(os.path.abspath(__file__))
    return os.path.join(log_dir, "debug.log")


def main():
    import traceback
    logging.basicConfig(filename=_log_path(), level=logging.DEBUG,
                        format="%(asctime)s %(message)s", force=True)
    def _excepthook(t, v, tb):
        log.error("".join(traceback.format_exception(t, v, tb)))
        sys.__excepthook__(t, v, tb)
    sys.excepthook = _excepthook
    log.info("Starting")
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    window = DrawingBoardWindow()
    window.show()
    # Load file from command line: drawingboard image.png
    if len(sys.argv) > 1:
        window.open_file(sys.argv[1])
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
