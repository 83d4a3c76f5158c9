"""Sentence segmentation backed by razdel."""

from __future__ import annotations

from razdel import sentenize

from dumpstream.cleaning.normalization import normalize_whitespace


class RazdelSegmenter:
    """Split text into single-line sentences in source order."""

    def segment(self, text: str) -> list[str]:
        sentences: list[str] = []
        for match in sentenize(text):
            sentence = normalize_whitespace(match.text)
            if sentence:
                sentences.append(sentence)
        return sentences
