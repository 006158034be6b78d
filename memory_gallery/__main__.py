from memory_gallery.app import main

main()
