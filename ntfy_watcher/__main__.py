from ntfy_watcher.main import main

main()
