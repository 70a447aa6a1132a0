"""Default achievement and quest catalogs"""
from reading_journey.models.gamification import Achievement, AchievementCategory, Quest, QuestType

DEFAULT_ACHIEVEMENTS = [
    # Milestones
    Achievement(
        id="first_chapter", name="First Chapter", icon="📖",
        description="Finish your first book",
        xp_reward=25, category=AchievementCategory.MILESTONE,
        requirement={"metric": "books_read", "count": 1}, sort_order=10,
    ),
    Achievement(
        id="bookworm", name="Bookworm", icon="🐛",
        description="Finish 10 books",
        xp_reward=100, category=AchievementCategory.MILESTONE,
        requirement={"metric": "books_read", "count": 10}, sort_order=20,
    ),
    Achievement(
        id="library_builder", name="Library Builder", icon="📚",
        description="Finish 50 books",
        xp_reward=250, category=AchievementCategory.MILESTONE,
        requirement={"metric": "books_read", "count": 50}, sort_order=30,
    ),
    Achievement(
        id="centurion", name="Centurion", icon="🏛️",
        description="Finish 100 books",
        xp_reward=500, category=AchievementCategory.MILESTONE,
        requirement={"metric": "books_read", "count": 100}, sort_order=40,
    ),
    # Streaks
    Achievement(
        id="week_streak", name="Week of Pages", icon="🔥",
        description="Read 7 days in a row",
        xp_reward=50, category=AchievementCategory.STREAK,
        requirement={"metric": "streak_days", "count": 7}, sort_order=50,
    ),
    Achievement(
        id="month_streak", name="Monthly Devotion", icon="🌙",
        description="Read 30 days in a row",
        xp_reward=200, category=AchievementCategory.STREAK,
        requirement={"metric": "streak_days", "count": 30}, sort_order=60,
    ),
    Achievement(
        id="hundred_day_streak", name="Unstoppable", icon="⚡",
        description="Read 100 days in a row",
        xp_reward=500, category=AchievementCategory.STREAK,
        requirement={"metric": "streak_days", "count": 100}, sort_order=70,
    ),
    # Genres
    Achievement(
        id="genre_explorer", name="Genre Explorer", icon="🧭",
        description="Finish books from 5 different genres",
        xp_reward=75, category=AchievementCategory.GENRE,
        requirement={"metric": "genres_explored", "count": 5}, sort_order=80,
    ),
    Achievement(
        id="genre_master", name="Genre Master", icon="🗺️",
        description="Finish books from 10 different genres",
        xp_reward=150, category=AchievementCategory.GENRE,
        requirement={"metric": "genres_explored", "count": 10}, sort_order=90,
    ),
    # Engagement
    Achievement(
        id="first_review", name="Critic's Debut", icon="✍️",
        description="Write your first review",
        xp_reward=25, category=AchievementCategory.ENGAGEMENT,
        requirement={"metric": "reviews_written", "count": 1}, sort_order=100,
    ),
    Achievement(
        id="prolific_critic", name="Prolific Critic", icon="🖋️",
        description="Write 10 reviews",
        xp_reward=100, category=AchievementCategory.ENGAGEMENT,
        requirement={"metric": "reviews_written", "count": 10}, sort_order=110,
    ),
    Achievement(
        id="star_giver", name="Star Giver", icon="⭐",
        description="Rate 10 books",
        xp_reward=50, category=AchievementCategory.ENGAGEMENT,
        requirement={"metric": "books_rated", "count": 10}, sort_order=120,
    ),
    Achievement(
        id="social_reader", name="Social Reader", icon="🤝",
        description="Join your first book club",
        xp_reward=25, category=AchievementCategory.ENGAGEMENT,
        requirement={"metric": "clubs_joined", "count": 1}, sort_order=130,
    ),
    Achievement(
        id="club_founder", name="Club Founder", icon="🏰",
        description="Create a book club",
        xp_reward=50, category=AchievementCategory.ENGAGEMENT,
        requirement={"metric": "clubs_created", "count": 1}, sort_order=140,
    ),
    # Special
    Achievement(
        id="grand_reader", name="Grand Reader", icon="👑",
        description="Reach level 10",
        xp_reward=250, category=AchievementCategory.SPECIAL,
        requirement={"metric": "level", "count": 10}, sort_order=150,
    ),
]

DEFAULT_QUESTS = [
    Quest(
        id="daily_session", name="Daily Dose", type=QuestType.DAILY,
        description="Log a reading session today",
        xp_reward=20, requirement={"metric": "reading_sessions", "count": 1},
    ),
    Quest(
        id="daily_twenty_pages", name="Twenty Pages", type=QuestType.DAILY,
        description="Read 20 pages today",
        xp_reward=25, requirement={"metric": "pages_read", "count": 20},
    ),
    Quest(
        id="weekly_finish", name="Weekly Finisher", type=QuestType.WEEKLY,
        description="Finish a book this week",
        xp_reward=75, requirement={"metric": "books_read", "count": 1},
    ),
    Quest(
        id="weekly_reviews", name="Share Your Thoughts", type=QuestType.WEEKLY,
        description="Write 2 reviews this week",
        xp_reward=50, requirement={"metric": "reviews_written", "count": 2},
    ),
    Quest(
        id="monthly_four_books", name="Four for the Month", type=QuestType.MONTHLY,
        description="Finish 4 books this month",
        xp_reward=200, requirement={"metric": "books_read", "count": 4},
    ),
    Quest(
        id="event_join_club", name="Join the Conversation", type=QuestType.EVENT,
        description="Join a book club during the event",
        xp_reward=50, requirement={"metric": "clubs_joined", "count": 1},
    ),
]
