import os

from PyQt5.QtCore import QEvent, QPointF, QSettings, Qt
from PyQt5.QtGui import QColor, QImage, QMouseEvent

import drawingboard
from drawingboard import CanvasWidget, DrawingBoardWindow, DrawingSurface
from helpers import changed_pixels, rgb


def mouse(kind, x, y, button=Qt.LeftButton, buttons=Qt.LeftButton):
    return QMouseEvent(kind, QPointF(x, y), button, buttons, Qt.NoModifier)


def test_widget_size_follows_buffer(qapp):
    widget = CanvasWidget(DrawingSurface(120, 80))
    assert (widget.width(), widget.height()) == (120, 80)
    img = QImage(33, 44, QImage.Format_RGB32)
    img.fill(QColor(Qt.white))
    widget.load_image(img)
    assert (widget.width(), widget.height()) == (33, 44)


def test_mouse_press_and_drag_paint(qapp):
    widget = CanvasWidget(DrawingSurface(50, 50))
    widget.surface.select_tool("Pencil")
    widget.mousePressEvent(mouse(QEvent.MouseButtonPress, 3, 4))
    widget.mouseMoveEvent(mouse(QEvent.MouseMove, 6, 4, button=Qt.NoButton))
    widget.mouseReleaseEvent(mouse(QEvent.MouseButtonRelease, 6, 4, buttons=Qt.NoButton))
    assert changed_pixels(widget.surface.get_image()) == {(3, 4), (6, 4)}
    assert widget.modified


def test_hover_without_button_does_not_paint(qapp):
    widget = CanvasWidget(DrawingSurface(50, 50))
    widget.mouseMoveEvent(mouse(QEvent.MouseMove, 10, 10, button=Qt.NoButton, buttons=Qt.NoButton))
    assert changed_pixels(widget.surface.get_image()) == set()
    assert not widget.modified


def test_right_button_press_ignored(qapp):
    widget = CanvasWidget(DrawingSurface(50, 50))
    widget.mousePressEvent(mouse(QEvent.MouseButtonPress, 10, 10,
                                 button=Qt.RightButton, buttons=Qt.RightButton))
    assert changed_pixels(widget.surface.get_image()) == set()


def test_window_toolbar_lists_tools(qapp):
    window = DrawingBoardWindow(DrawingSurface(40, 40))
    assert sorted(window._tool_actions) == ["Brush", "Pencil"]
    assert window._tool_actions["Brush"].isChecked()
    window._on_tool_selected("Pencil")
    assert window.canvas.surface.selected_tool_name == "Pencil"
    assert window._tool_actions["Pencil"].isChecked()
    window._on_tool_selected("Nope")
    assert window.canvas.surface.selected_tool_name == "Pencil"


def test_window_save_and_open_round_trip(qapp, tmp_path):
    window = DrawingBoardWindow(DrawingSurface(30, 20))
    window.canvas.surface.select_tool("Pencil")
    window.canvas.mousePressEvent(mouse(QEvent.MouseButtonPress, 2, 2))
    target = str(tmp_path / "drawing")
    assert window._save_to(target)
    assert os.path.exists(target + ".png")
    assert not window.canvas.modified

    other = DrawingBoardWindow(DrawingSurface(5, 5))
    other.canvas.surface.select_tool("Pencil")
    assert other.open_file(target + ".png")
    buf = other.canvas.surface.get_image()
    assert (buf.width(), buf.height()) == (30, 20)
    assert rgb(buf.get(2, 2)) == "#000000"
    assert other.canvas.surface.selected_tool_name == "Brush"
    assert other._tool_actions["Brush"].isChecked()


def test_log_path_honours_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DRAWINGBOARD_LOG_DIR", str(tmp_path))
    assert drawingboard._log_path() == os.path.join(str(tmp_path), "debug.log")


def test_window_radius_spin_updates_brush(qapp):
    window = DrawingBoardWindow(DrawingSurface(40, 40))
    assert window.radius_spin.value() == 3
    window.radius_spin.setValue(7)
    assert window.canvas.surface.brush_radius == 7
    window.canvas.set_buffer(window.canvas.surface.blank_image())
    assert window.canvas.surface.tool("Brush").radius == 7


def test_file_new_keeps_surface_size_and_background(qapp):
    window = DrawingBoardWindow(DrawingSurface(64, 48, QColor(Qt.green)))
    window.canvas.mousePressEvent(mouse(QEvent.MouseButtonPress, 10, 10))
    window.canvas.set_modified(False)
    window._file_new()
    buf = window.canvas.surface.get_image()
    assert (buf.width(), buf.height()) == (64, 48)
    assert changed_pixels(buf, background="#00ff00") == set()
    assert (window.canvas.width(), window.canvas.height()) == (64, 48)


def test_settings_are_isolated_from_user_config(qapp, tmp_path, isolated_settings):
    window = DrawingBoardWindow(DrawingSurface(10, 10))
    assert window._save_to(str(tmp_path / "pic.png"))
    settings = QSettings("DrawingBoard", drawingboard.APP_NAME)
    assert settings.value("last_dir") == str(tmp_path)
    assert settings.fileName().startswith(isolated_settings)
