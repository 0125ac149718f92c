from project_generator.cli import main

main()
