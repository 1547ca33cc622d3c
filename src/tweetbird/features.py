"""Feature flag and field toggle sets sent with GraphQL requests.

These must track the current web client. When the server starts answering
400 with "features cannot be null" a flag here has gone missing.
"""

# Shared base matching the web client's timeline requests
BASE_FEATURES = {
    "rweb_video_screen_enabled": True,
    "profile_label_improvements_pcf_label_in_post_enabled": True,
    "responsive_web_profile_redirect_enabled": True,
    "rweb_tipjar_consumption_enabled": True,
    "verified_phone_label_enabled": False,
    "creator_subscriptions_tweet_preview_api_enabled": True,
    "responsive_web_graphql_timeline_navigation_enabled": True,
    "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
    "premium_content_api_read_enabled": False,
    "communities_web_enable_tweet_community_results_fetch": True,
    "c9s_tweet_anatomy_moderator_badge_enabled": True,
    "responsive_web_grok_analyze_button_fetch_trends_enabled": False,
    "responsive_web_grok_analyze_post_followups_enabled": False,
    "responsive_web_jetfuel_frame": True,
    "responsive_web_grok_share_attachment_enabled": True,
    "articles_preview_enabled": True,
    "responsive_web_edit_tweet_api_enabled": True,
    "graphql_is_translatable_rweb_tweet_is_translatable_enabled": True,
    "view_counts_everywhere_api_enabled": True,
    "longform_notetweets_consumption_enabled": True,
    "responsive_web_twitter_article_tweet_consumption_enabled": True,
    "tweet_awards_web_tipping_enabled": False,
    "responsive_web_grok_show_grok_translated_post": False,
    "responsive_web_grok_analysis_button_from_backend": True,
    "creator_subscriptions_quote_tweet_preview_enabled": False,
    "freedom_of_speech_not_reach_fetch_enabled": True,
    "standardized_nudges_misinfo": True,
    "tweet_with_visibility_results_prefer_gql_limited_actions_policy_enabled": True,
    "longform_notetweets_rich_text_read_enabled": True,
    "longform_notetweets_inline_media_enabled": True,
    "responsive_web_grok_image_annotation_enabled": True,
    "responsive_web_grok_imagine_annotation_enabled": True,
    "responsive_web_grok_community_note_auto_translation_is_enabled": False,
    "responsive_web_enhance_cards_enabled": False,
}


def build_article_features() -> dict[str, bool]:
    return dict(BASE_FEATURES)


def build_tweet_detail_features() -> dict[str, bool]:
    return {
        **BASE_FEATURES,
        "responsive_web_graphql_exclude_directive_enabled": True,
        "responsive_web_twitter_article_plain_text_enabled": True,
        "responsive_web_twitter_article_seed_tweet_detail_enabled": True,
        "responsive_web_twitter_article_seed_tweet_summary_enabled": True,
        "articles_rest_api_enabled": True,
        "rweb_video_timestamps_enabled": True,
    }


def build_search_features() -> dict[str, bool]:
    return {
        **BASE_FEATURES,
        "responsive_web_graphql_exclude_directive_enabled": True,
        "rweb_video_timestamps_enabled": True,
    }


def build_timeline_features() -> dict[str, bool]:
    """Features for bookmarks, likes, list and user timelines."""
    return {
        **BASE_FEATURES,
        "responsive_web_graphql_exclude_directive_enabled": True,
        "rweb_video_timestamps_enabled": True,
    }


def build_create_tweet_features() -> dict[str, bool]:
    return {
        **BASE_FEATURES,
        "responsive_web_profile_redirect_enabled": False,
    }


def build_user_features() -> dict[str, bool]:
    """Features for UserByScreenName lookups."""
    return {
        "hidden_profile_subscriptions_enabled": True,
        "hidden_profile_likes_enabled": True,
        "rweb_tipjar_consumption_enabled": True,
        "responsive_web_graphql_exclude_directive_enabled": True,
        "verified_phone_label_enabled": False,
        "subscriptions_verification_info_is_identity_verified_enabled": True,
        "subscriptions_verification_info_verified_since_enabled": True,
        "highlights_tweets_tab_ui_enabled": True,
        "responsive_web_twitter_article_notes_tab_enabled": True,
        "subscriptions_feature_can_gift_premium": True,
        "creator_subscriptions_tweet_preview_api_enabled": True,
        "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
        "responsive_web_graphql_timeline_navigation_enabled": True,
        "blue_business_profile_image_shape_enabled": True,
    }


def build_article_field_toggles() -> dict[str, bool]:
    return {
        "withPayments": False,
        "withAuxiliaryUserLabels": False,
        "withArticleRichContentState": True,
        "withArticlePlainText": True,
        "withGrokAnalyze": False,
        "withDisallowedReplyControls": False,
    }
