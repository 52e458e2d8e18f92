#!/usr/bin/env python3
"""
Text frame renderer for termwave.

Bars grow symmetrically from a horizontal midline. Output is plain text with
one line per row; cursor handling is left to terminal.py.
"""


class FrameRenderer:
    """
    Map a smoothed energy profile to a `height` x `width` glyph grid.

    Example (width=8, height=6, one loud column at index 3):

        "        "
        "   |    "
        "   |    "
        "   |    "   <- midline (row 3)
        "   |    "
        "   |    "
    """

    STATUS_FORMAT = "Audio Visualizer | {sample_rate}Hz | {chunk_size} samples | {fps} FPS"

    def __init__(self, config):
        self.config = config
        self.midline = config.height // 2
        self.max_bar = max(0, self.midline - 1)

    def bar_height(self, value):
        """Rows drawn above (and below) the midline for a profile value."""
        height = int(value * self.config.amplify * (self.midline - 1))
        return max(0, min(height, self.max_bar))

    def status_line(self):
        return self.STATUS_FORMAT.format(
            sample_rate=self.config.sample_rate,
            chunk_size=self.config.chunk_size,
            fps=self.config.fps,
        )

    def _column_heights(self, profile):
        """Bar height per screen column, None for gap/empty columns."""
        spacing = self.config.bar_spacing
        heights = []
        for col in range(self.config.width):
            if spacing > 1 and col % spacing != 0:
                heights.append(None)
                continue
            wave_idx = col // spacing if spacing > 1 else col
            if wave_idx >= len(profile):
                heights.append(None)
                continue
            heights.append(self.bar_height(profile[wave_idx]))
        return heights

    def render_frame(self, profile):
        """
        Render one frame.

        Args:
            profile: sequence of per-column energies (smoothed vector)

        Returns:
            `height` newline-terminated rows, plus the status line if enabled
        """
        glyph = self.config.char
        midline = self.midline
        heights = self._column_heights(profile)

        lines = []
        for row in range(self.config.height):
            cells = []
            for height in heights:
                if height and midline - height <= row <= midline + height:
                    cells.append(glyph)
                else:
                    cells.append(" ")
            cells.append("\n")
            lines.append("".join(cells))

        if self.config.show_status:
            lines.append(self.status_line() + "\n")
        return "".join(lines)
