"""Package entry point for ``python -m subtitle_translate``.

WHY: Users can run the tool as ``python -m subtitle_translate in.srt de
out.srt`` without the console script on PATH. Python's ``-m`` flag
looks for ``__main__.py`` inside the package and executes it.

HOW: Delegates to the CLI's main() function.
"""

from subtitle_translate.cli import main

if __name__ == "__main__":
    main()
