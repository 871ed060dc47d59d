"""``python -m zeptrion2mqtt``."""

from zeptrion2mqtt._cli import main

main()
