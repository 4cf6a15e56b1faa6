"""Run the Minecraft server wrapper."""

from mcwrapper.__main__ import main

if __name__ == "__main__":
    main()
