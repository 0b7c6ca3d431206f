from httpmonitor.main import main

main()
