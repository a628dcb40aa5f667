#main.py
# Contains the list view, the console user interface functions and main(),
# which wires the store, notifier and scheduler together and runs the menu loop.

import logging
import os
from datetime import datetime

import parsedatetime
import schedule

from models import TIME_PATTERN, sort_for_display
from managers import (
    AudioCue,
    KeyValueStore,
    Notifier,
    PERMISSION_KEY,
    ReminderStore,
    Scheduler,
    VisualBanner,
)

# Initialize parsedatetime Calendar
cal = parsedatetime.Calendar(version=parsedatetime.VERSION_CONTEXT_STYLE)

DEFAULT_DATABASE = 'reminders.db'
DEFAULT_SOUND = 'alarm.wav'
LOG_FILE = 'med_reminder.log'


def configure_logging(log_file=LOG_FILE):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def normalize_time(text):
    """Turn user input such as '8:05', '8pm' or '20:00' into 'HH:MM'."""
    text = text.strip()
    if TIME_PATTERN.match(text):
        return text
    time_struct, context = cal.parse(text)
    if not context.hasTime:
        raise ValueError(f"No time of day in {text!r}")
    return datetime(*time_struct[:6]).strftime('%H:%M')


class ReminderListView:
    EMPTY_MESSAGE = "No reminders set."

    def __init__(self):
        self.row_ids = []

    def render(self, reminders):
        ordered = sort_for_display(reminders)
        # rows are bound to ids so a later delete can't hit a re-sorted neighbour
        self.row_ids = [reminder.id for reminder in ordered]
        if not ordered:
            print(self.EMPTY_MESSAGE)
            return
        print("\nYour medication reminders:")
        for idx, reminder in enumerate(ordered, start=1):
            status = " (reminded)" if reminder.notified else ""
            print(f"{idx}. [{reminder.time}] - {reminder.name}{status}")

    def reminder_id_for(self, row_number):
        if 1 <= row_number <= len(self.row_ids):
            return self.row_ids[row_number - 1]
        return None


def request_notification_permission(store):
    if store.notification_permission() != 'default':
        return store.notification_permission()
    answer = input("Allow desktop notifications? (y/n): ").strip().lower()
    state = 'granted' if answer == 'y' else 'denied'
    store.set_setting(PERMISSION_KEY, state)
    logging.info("Notification permission %s", state)
    return state


def show_active_banner(banner):
    if banner.visible:
        print(f"\n>> {banner.text}")
        return True
    return False


def add_reminder_ui(store, view):
    name = input("Medication name: ")
    time_input = input("Time to take it (e.g. '08:00', '8pm'): ")
    try:
        reminder_time = normalize_time(time_input)
    except ValueError:
        logging.warning("Failed to parse the reminder time: '%s'", time_input)
        print("Sorry, I didn't understand the time you entered.")
        return None
    try:
        reminder = store.add(name, reminder_time)
    except ValueError as e:
        print(f"Could not add reminder: {e}")
        return None
    print(f"Reminder set for {reminder.name} at {reminder.time}")
    view.render(store.sorted_reminders())
    return reminder


def view_reminders_ui(store, view):
    view.render(store.sorted_reminders())


def delete_reminder_ui(store, view):
    if not store.reminders:
        print("You have no reminders to delete.")
        return False

    view.render(store.sorted_reminders())
    try:
        choice = int(input("Enter the number of the reminder to delete: "))
    except ValueError:
        print("Invalid input. Please enter a number.")
        return False

    reminder_id = view.reminder_id_for(choice)
    if reminder_id is None:
        print("Invalid selection. Please enter a valid number.")
        return False
    if not store.delete(reminder_id):
        print("That reminder no longer exists.")
        view.render(store.sorted_reminders())
        return False
    print("Reminder deleted successfully.")
    view.render(store.sorted_reminders())
    return True


def main():
    configure_logging()
    database = os.environ.get('MED_REMINDER_DB', DEFAULT_DATABASE)
    sound_file = os.environ.get('MED_REMINDER_SOUND', DEFAULT_SOUND)

    store = ReminderStore(KeyValueStore(database))
    view = ReminderListView()
    jobs = schedule.Scheduler()
    banner = VisualBanner(jobs)
    notifier = Notifier(banner, AudioCue(sound_file), permission=store.notification_permission)
    scheduler = Scheduler(store, notifier, jobs=jobs)

    view.render(store.sorted_reminders())

    try:
        request_notification_permission(store)
        scheduler.start()
        while True:
            show_active_banner(banner)
            print("\nWhat would you like to do?")
            print("1. Add a medication reminder")
            print("2. View reminders")
            print("3. Delete a reminder")
            print("4. Exit")
            choice = input("Enter your choice (1-4): ")

            if choice == '1':
                add_reminder_ui(store, view)
            elif choice == '2':
                view_reminders_ui(store, view)
            elif choice == '3':
                delete_reminder_ui(store, view)
            elif choice == '4':
                logging.info("User chose to exit the program.")
                print("Goodbye!")
                break
            else:
                logging.warning("Invalid menu choice: '%s'", choice)
                print("Invalid choice. Please try again.")
    except (KeyboardInterrupt, EOFError):
        logging.info("Program terminated by user.")
        print("\nExiting program.")
    finally:
        scheduler.stop()
        store.kv.close()


if __name__ == "__main__":
    main()
