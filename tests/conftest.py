import os

# Qt needs a platform plugin even for non-GUI tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
