from notification_center.main import main

main()
