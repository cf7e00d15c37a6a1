def rgb(color):
    return color.name() if color is not None else None


def changed_pixels(buf, background="#ffffff"):
    return {
        (x, y)
        for y in range(buf.height())
        for x in range(buf.width())
        if rgb(buf.get(x, y)) != background
    }


def disc(cx, cy, r, w, h):
    return {
        (x, y)
        for y in range(h)
        for x in range(w)
        if (x - cx) ** 2 + (y - cy) ** 2 <= r * r
    }
